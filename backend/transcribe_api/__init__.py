"""
Transcription service built with FastAPI, exposing
- an audio upload endpoint that transcribes through AssemblyAI,
- per-user transcript history,
- and static serving of retained audio.
"""

__version__ = "0.1.0"
