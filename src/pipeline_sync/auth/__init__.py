"""QR code login handshake."""
