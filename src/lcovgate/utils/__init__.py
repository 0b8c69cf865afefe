"""CI context, subprocess, GitHub API and version helpers."""
