"""Configuration: reflect.yaml schema and loader."""
