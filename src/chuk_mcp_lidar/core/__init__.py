"""Core pipeline: region model, fetcher, assembler, synthesizer, manager."""
