"""
Service Organization
====================
Services are organized by their role:

**application/**
  Singleton services managed by ServiceContainer. One instance per application.
  Examples: AnalyticsEngine, AnalyticsStore, RecommendationFeedbackService

**ai/**
  Rule-based recommendation generation.
  Examples: RecommendationEngine, the recommendation rule set

``protocols`` declares the read-only data source the services consume.
"""
