"""osu! API access: retrying HTTP client, credentials, id resolution."""
