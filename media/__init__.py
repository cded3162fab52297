"""Media Module - image/video processing and the upload pipeline."""
