"""tubeshift: resumable YouTube download, merge and upload pipeline."""

__version__ = "0.1.0"
