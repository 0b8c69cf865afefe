"""lcov and genhtml drivers and trace-file readers."""
