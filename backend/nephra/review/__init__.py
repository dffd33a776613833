"""Pure review logic: progress codec, note ledger, titles and state machine."""
