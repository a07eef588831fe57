"""Domain layer - models, ports and services of the streaming chat engine."""
