"""Meeting recordings: upload, transcription, analysis, status polling."""
