"""HTTP server package — FastAPI app exposing the captioning pipeline."""
