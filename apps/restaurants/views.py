from rest_framework import generics
from rest_framework.permissions import IsAuthenticated

from .models import Restaurant
from .serializers import RestaurantSerializer
from .permissions import IsRestaurantAdminOrReadOnly


class CurrentRestaurantView(generics.RetrieveUpdateAPIView):
    """
    Loyalty configuration of the caller's restaurant.

    GET   /api/restaurants/current/ - any member
    PATCH /api/restaurants/current/ - administrators only

    Changing the loyalty mode or ratios affects new transactions only;
    recorded transactions keep the units they earned.
    """

    serializer_class = RestaurantSerializer
    permission_classes = [IsAuthenticated, IsRestaurantAdminOrReadOnly]
    http_method_names = ['get', 'patch', 'put', 'head', 'options']

    def get_object(self):
        restaurant = generics.get_object_or_404(Restaurant, pk=self.request.user.restaurant_id)
        self.check_object_permissions(self.request, restaurant)
        return restaurant
