"""Infrastructure layer - adapters for the Ollama backend, tools and configuration."""
