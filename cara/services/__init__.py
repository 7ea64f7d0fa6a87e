"""Request flows and the pieces they share (completion client, stores, normalizer)."""
