from rest_framework.routers import DefaultRouter
from django.urls import path, include
from . import views


router = DefaultRouter()

router.register('candidates', views.CandidateViewSet, basename='candidate')
router.register('analytics', views.AnalyticsViewSet, basename='analytics')
router.register('auditlogs', views.AuditLogViewSet, basename='auditlog')

urlpatterns = [
    path('', include(router.urls)),
]
