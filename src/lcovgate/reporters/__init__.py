"""Comment, terminal and artifact reporters."""
