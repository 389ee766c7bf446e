from django.urls import path
from . import views

app_name = 'restaurants'

urlpatterns = [
    # GET   /api/restaurants/current/ - Loyalty configuration
    # PATCH /api/restaurants/current/ - Update configuration (admin)
    path('current/', views.CurrentRestaurantView.as_view(), name='current'),
]
