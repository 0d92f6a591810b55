"""Adapters de infraestructura: HTTP (httpx + tenacity) y durable store."""
