"""
Voice Chat Client - streamed chat replies with voice input and read-aloud.

The conversation stream controller assembles assistant replies fragment by
fragment, pipes microphone recordings through a remote transcription
service, and keeps the persisted conversation record in step with the
in-memory message list.
"""

__version__ = "1.0.0"
