"""Local persistence and remote synchronization for training journey drafts."""
