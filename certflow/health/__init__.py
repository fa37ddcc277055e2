from certflow.health.router import router


__all__ = ["router"]
