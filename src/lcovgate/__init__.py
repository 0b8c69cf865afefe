"""lcovgate: lcov coverage reports and minimum-coverage gates for pull requests."""

__version__ = "0.1.0"
