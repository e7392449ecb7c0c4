"""create-v1-app: generate a V1 monorepo from package-manager-aware templates."""

__version__ = "0.1.0"
