"""
URL configuration for the tasks app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.api_info, name='api-info'),
    path('tasks/hierarchy/', views.task_hierarchy, name='task-hierarchy'),
    path('tasks/top/', views.top_tasks, name='top-tasks'),
    path('tasks/calendar/', views.task_calendar, name='task-calendar'),
    path('tasks/summary/', views.task_summary, name='task-summary'),
]
