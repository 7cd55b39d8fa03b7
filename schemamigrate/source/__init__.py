"""Migration sources: the driver interface and registry, the migration index, and file, file-tree, in-memory asset and stub sources."""