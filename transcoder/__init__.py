# Streambox transcoder - HLS ladder encoding, thumbnails and sprite previews

__version__ = "1.0.0"
