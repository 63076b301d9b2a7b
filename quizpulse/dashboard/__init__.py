from quizpulse.dashboard.projector import Dashboard, DashboardProjector

__all__ = ["Dashboard", "DashboardProjector"]
