"""File formats, configuration, raster export and the command line."""
