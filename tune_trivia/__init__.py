"""Tune Trivia: a music trivia game built around a clip-playback quiz session."""
