"""
Containers for the objects exchanged between the loaders, the alignment engine and the reporting steps: annotated
reference genomes, coding features and edit scripts.
"""
