"""Roster keeper: fantasy squad roster with versioned, week-frozen persistence."""
