"""Release utilities: semantic versions, release config, Docker Hub tags, image reports, test flag coverage and release traces."""

__version__ = "0.1.0"