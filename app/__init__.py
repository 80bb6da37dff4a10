"""
GrowLab cultivation analytics.

Turns environment samples and grower activity logs into analytics
snapshots and ranked recommendations. Entry points:

- ``app.services.container.ServiceContainer.build`` wires every service
- ``growlab-scheduler`` runs the background processor
"""

__version__ = "1.0.0"
