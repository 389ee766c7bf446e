from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'loyalty'

# Router for ViewSets
router = DefaultRouter()
router.register(r'transactions', views.TransactionViewSet, basename='transaction')
router.register(r'redemptions', views.RedemptionViewSet, basename='redemption')
router.register(r'rewards', views.RewardViewSet, basename='reward')
router.register(r'activity', views.ActivityLogViewSet, basename='activity')
router.register(r'customers', views.CustomerViewSet, basename='customer')

urlpatterns = [
    # Transaction routes
    # GET    /api/loyalty/transactions/              - List transactions
    # POST   /api/loyalty/transactions/              - Record purchase (admin)
    # POST   /api/loyalty/transactions/{id}/cancel/  - Cancel (admin)
    # DELETE /api/loyalty/transactions/{id}/         - Delete cancelled (admin)

    # Redemption routes
    # GET    /api/loyalty/redemptions/               - List redemptions
    # POST   /api/loyalty/redemptions/               - Redeem a reward
    # POST   /api/loyalty/redemptions/verify/        - Verify by code (admin)
    # POST   /api/loyalty/redemptions/cancel/        - Cancel by code

    # Customer routes (admin)
    # GET    /api/loyalty/customers/                 - List customers with balances
    # POST   /api/loyalty/customers/                 - Create customer
    # PATCH  /api/loyalty/customers/{id}/            - Edit profile
    # DELETE /api/loyalty/customers/{id}/            - Delete customer and ledger rows

    # Balances
    path('balance/', views.my_balance, name='my-balance'),
    path('customers/<uuid:customer_id>/balance/', views.customer_balance, name='customer-balance'),
    path('customers/<uuid:customer_id>/adjust/', views.adjust_balance, name='customer-adjust'),

    # Dashboard
    path('stats/', views.loyalty_stats, name='stats'),

    # Include router URLs
    path('', include(router.urls)),
]
