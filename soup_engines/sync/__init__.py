"""Client-side session sync: transport, adaptive polling engine and view helpers."""
