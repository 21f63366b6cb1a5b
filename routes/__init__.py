from routes.experiences import router as experiences_router

__all__ = ["experiences_router"]
