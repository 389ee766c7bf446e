import uuid

from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from django.db.models import IntegerField, OuterRef, Q, Subquery
from django.db.models.functions import Coalesce
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.accounts.models import User, UserRole
from .analytics import LoyaltyAnalytics
from .models import ActivityLog, CustomerBalance, LoyaltyTransaction, Redemption, Reward
from .serializers import (
    ActivityLogSerializer,
    AdjustBalanceSerializer,
    BalanceAdjustmentSerializer,
    BalanceSerializer,
    CustomerSerializer,
    CustomerWriteSerializer,
    LoyaltyStatsSerializer,
    LoyaltyTransactionSerializer,
    RedemptionCodeSerializer,
    RedemptionCreateSerializer,
    RedemptionSerializer,
    RewardSerializer,
    StatsQuerySerializer,
    TransactionCreateSerializer,
)
from apps.restaurants.permissions import (
    IsRestaurantAdmin,
    IsRestaurantAdminOrReadOnly,
    IsRestaurantMember,
)

from apps.loyalty.services import (
    LedgerEngine,
    create_customer,
    update_customer,
    # Exceptions
    LoyaltyServiceError,
    ConsistencyViolationError,
    ContendedError,
    InvalidStateError,
    NotFoundError,
)

RETRY_AFTER_SECONDS = 1


class LoyaltyPagination(PageNumberPagination):
    """Custom pagination for ledger listings."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


def service_error_response(exc):
    """
    Translate a ledger exception into an HTTP response.

    400 for rule violations, 404 for missing records, 409 for state
    conflicts and lock contention, 500 for consistency violations.
    """
    if isinstance(exc, ConsistencyViolationError):
        # Stored and computed totals are in the logs only
        return Response(
            {'error': 'The operation could not be completed.', 'code': exc.code},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    body = {'error': str(exc), 'code': exc.code}
    if isinstance(exc, NotFoundError):
        return Response(body, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, ContendedError):
        return Response(
            body,
            status=status.HTTP_409_CONFLICT,
            headers={'Retry-After': str(RETRY_AFTER_SECONDS)}
        )
    if isinstance(exc, InvalidStateError):
        return Response(body, status=status.HTTP_409_CONFLICT)
    return Response(body, status=status.HTTP_400_BAD_REQUEST)


def get_engine(request):
    """Ledger engine for the caller's restaurant."""
    return LedgerEngine(request.user.restaurant)


def uuid_query_param(request, name):
    """Return a UUID query parameter, or None when absent. Malformed values are a 400."""
    value = request.query_params.get(name)
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationError({name: 'Must be a valid UUID.'})


class TransactionViewSet(mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         mixins.DestroyModelMixin,
                         viewsets.GenericViewSet):
    """
    ViewSet for earn events.

    list: Customers see their own transactions, administrators all of
        the restaurant's (filter with ?customer= and ?status=)
    retrieve: Get a transaction
    create: Record a purchase (admin only)
    cancel: Cancel a transaction, reversing its points/stamps (admin only)
    destroy: Delete a cancelled transaction (admin only)
    """

    serializer_class = LoyaltyTransactionSerializer
    permission_classes = [IsAuthenticated, IsRestaurantMember]
    pagination_class = LoyaltyPagination

    def get_queryset(self):
        user = self.request.user
        queryset = LoyaltyTransaction.objects.filter(
            restaurant_id=user.restaurant_id
        ).select_related('customer', 'recorded_by')

        if not user.is_restaurant_admin:
            return queryset.filter(customer=user)

        customer_id = uuid_query_param(self.request, 'customer')
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    def get_permissions(self):
        """Set permissions based on action."""
        if self.action in ['create', 'cancel', 'destroy']:
            return [IsAuthenticated(), IsRestaurantAdmin()]
        return [IsAuthenticated(), IsRestaurantMember()]

    @extend_schema(request=TransactionCreateSerializer, responses={201: LoyaltyTransactionSerializer})
    def create(self, request, *args, **kwargs):
        """Record a purchase for a customer."""
        serializer = TransactionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            transaction = get_engine(request).record_transaction(
                customer_id=serializer.validated_data['customer'],
                amount=serializer.validated_data['amount'],
                performed_by=request.user
            )
        except LoyaltyServiceError as e:
            return service_error_response(e)

        output_serializer = LoyaltyTransactionSerializer(transaction)
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={200: LoyaltyTransactionSerializer})
    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """Cancel a transaction."""
        try:
            transaction = get_engine(request).cancel_transaction(
                transaction_id=pk,
                performed_by=request.user
            )
        except LoyaltyServiceError as e:
            return service_error_response(e)

        return Response(LoyaltyTransactionSerializer(transaction).data)

    def destroy(self, request, *args, **kwargs):
        """Delete a cancelled transaction."""
        try:
            get_engine(request).delete_transaction(
                transaction_id=self.kwargs['pk'],
                performed_by=request.user
            )
            return Response(status=status.HTTP_204_NO_CONTENT)
        except LoyaltyServiceError as e:
            return service_error_response(e)


class RedemptionViewSet(mixins.ListModelMixin,
                        mixins.RetrieveModelMixin,
                        viewsets.GenericViewSet):
    """
    ViewSet for spend events.

    list: Customers see their own redemptions, administrators all (?status=)
    retrieve: Get a redemption
    create: Redeem a reward (customers for themselves, admins for ?customer)
    verify: Mark a pending redemption as honored (admin only)
    cancel: Cancel a pending redemption and release the hold
    """

    serializer_class = RedemptionSerializer
    permission_classes = [IsAuthenticated, IsRestaurantMember]
    pagination_class = LoyaltyPagination

    def get_queryset(self):
        user = self.request.user
        queryset = Redemption.objects.filter(
            restaurant_id=user.restaurant_id
        ).select_related('customer', 'verified_by')

        if not user.is_restaurant_admin:
            queryset = queryset.filter(customer=user)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    def get_permissions(self):
        """Set permissions based on action."""
        if self.action == 'verify':
            return [IsAuthenticated(), IsRestaurantAdmin()]
        return [IsAuthenticated(), IsRestaurantMember()]

    @extend_schema(request=RedemptionCreateSerializer, responses={201: RedemptionSerializer})
    def create(self, request, *args, **kwargs):
        """Redeem a reward."""
        serializer = RedemptionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        customer_id = request.user.pk
        if request.user.is_restaurant_admin:
            customer_id = serializer.validated_data.get('customer')
            if not customer_id:
                return Response(
                    {'error': 'customer is required'},
                    status=status.HTTP_400_BAD_REQUEST
                )

        try:
            redemption = get_engine(request).create_redemption(
                customer_id=customer_id,
                reward_id=serializer.validated_data['reward']
            )
        except LoyaltyServiceError as e:
            return service_error_response(e)

        output_serializer = RedemptionSerializer(redemption)
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(request=RedemptionCodeSerializer, responses={200: RedemptionSerializer})
    @action(detail=False, methods=['post'])
    def verify(self, request):
        """Verify a redemption by code."""
        serializer = RedemptionCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            redemption = get_engine(request).verify_redemption(
                code=serializer.validated_data['redemption_code'],
                verified_by=request.user
            )
        except LoyaltyServiceError as e:
            return service_error_response(e)

        return Response(RedemptionSerializer(redemption).data)

    @extend_schema(request=RedemptionCodeSerializer, responses={200: RedemptionSerializer})
    @action(detail=False, methods=['post'])
    def cancel(self, request):
        """Cancel a pending redemption by code."""
        serializer = RedemptionCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        code = serializer.validated_data['redemption_code'].strip().upper()

        # Customers may only cancel their own
        if not request.user.is_restaurant_admin:
            owns = Redemption.objects.filter(
                restaurant_id=request.user.restaurant_id,
                redemption_code=code,
                customer=request.user
            ).exists()
            if not owns:
                return Response(
                    {'error': 'Redemption not found', 'code': NotFoundError.code},
                    status=status.HTTP_404_NOT_FOUND
                )

        try:
            redemption = get_engine(request).cancel_redemption(
                code=code,
                performed_by=request.user
            )
        except LoyaltyServiceError as e:
            return service_error_response(e)

        return Response(RedemptionSerializer(redemption).data)


class RewardViewSet(viewsets.ModelViewSet):
    """
    ViewSet for the reward catalog.

    Members read, administrators write. Customers only see active rewards.
    """

    serializer_class = RewardSerializer
    permission_classes = [IsAuthenticated, IsRestaurantAdminOrReadOnly]
    pagination_class = LoyaltyPagination

    def get_queryset(self):
        user = self.request.user
        queryset = Reward.objects.filter(restaurant_id=user.restaurant_id)
        if not user.is_restaurant_admin:
            queryset = queryset.filter(is_active=True)
        return queryset

    def perform_create(self, serializer):
        serializer.save(restaurant_id=self.request.user.restaurant_id)


class ActivityLogViewSet(viewsets.ReadOnlyModelViewSet):
    """Audit trail of the restaurant's ledger (admin only)."""

    serializer_class = ActivityLogSerializer
    permission_classes = [IsAuthenticated, IsRestaurantAdmin]
    pagination_class = LoyaltyPagination

    def get_queryset(self):
        queryset = ActivityLog.objects.filter(
            restaurant_id=self.request.user.restaurant_id
        ).select_related('performed_by')

        action_type = self.request.query_params.get('action_type')
        if action_type:
            queryset = queryset.filter(action_type=action_type)
        return queryset


def _balance_payload(request, balance):
    return BalanceSerializer({
        **balance,
        'loyalty_mode': request.user.restaurant.loyalty_mode,
    }).data


@extend_schema(
    responses={200: BalanceSerializer},
    description="Get the current user's points and stamps.",
    tags=['loyalty'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRestaurantMember])
def my_balance(request):
    """Get the caller's balance."""
    try:
        balance = get_engine(request).get_balance(customer_id=request.user.pk)
    except LoyaltyServiceError as e:
        return service_error_response(e)
    return Response(_balance_payload(request, balance))


@extend_schema(
    responses={200: BalanceSerializer},
    description="Get a customer's points and stamps (admin only).",
    tags=['loyalty'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRestaurantAdmin])
def customer_balance(request, customer_id):
    """Get a customer's balance."""
    try:
        balance = get_engine(request).get_balance(customer_id=customer_id)
    except LoyaltyServiceError as e:
        return service_error_response(e)
    return Response(_balance_payload(request, balance))


@extend_schema(
    request=AdjustBalanceSerializer,
    responses={201: BalanceAdjustmentSerializer},
    description="Manually add or subtract points/stamps (admin only).",
    tags=['loyalty'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsRestaurantAdmin])
def adjust_balance(request, customer_id):
    """Adjust a customer's balance."""
    serializer = AdjustBalanceSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        adjustment = get_engine(request).adjust_balance(
            customer_id=customer_id,
            amount=serializer.validated_data['amount'],
            direction=serializer.validated_data['action'],
            performed_by=request.user,
            note=serializer.validated_data['note']
        )
    except LoyaltyServiceError as e:
        return service_error_response(e)

    return Response(BalanceAdjustmentSerializer(adjustment).data, status=status.HTTP_201_CREATED)


class CustomerViewSet(viewsets.ModelViewSet):
    """
    ViewSet for the restaurant's customers (admin only).

    list: Customers with their balances (?search= matches name, phone or email)
    retrieve: Get a customer
    create: Create a customer profile
    update: Edit a customer profile
    destroy: Delete a customer and all their ledger rows
    """

    serializer_class = CustomerSerializer
    permission_classes = [IsAuthenticated, IsRestaurantAdmin]
    pagination_class = LoyaltyPagination

    def get_queryset(self):
        restaurant_id = self.request.user.restaurant_id
        balances = CustomerBalance.objects.filter(
            customer=OuterRef('pk'),
            restaurant_id=restaurant_id,
        )
        queryset = User.objects.filter(
            restaurant_id=restaurant_id,
            role=UserRole.CUSTOMER,
        ).annotate(
            points_balance=Coalesce(
                Subquery(balances.values('points')[:1]), 0, output_field=IntegerField()
            ),
            stamps_balance=Coalesce(
                Subquery(balances.values('stamps')[:1]), 0, output_field=IntegerField()
            ),
        ).order_by('full_name', 'email')

        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(full_name__icontains=search)
                | Q(phone__icontains=search)
                | Q(email__icontains=search)
            )
        return queryset

    def _customer_response(self, customer, status_code=status.HTTP_200_OK):
        customer = self.get_queryset().get(pk=customer.pk)
        return Response(CustomerSerializer(customer).data, status=status_code)

    @extend_schema(request=CustomerWriteSerializer, responses={201: CustomerSerializer})
    def create(self, request, *args, **kwargs):
        """Create a customer."""
        serializer = CustomerWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = create_customer(
            restaurant=request.user.restaurant,
            email=data['email'],
            full_name=data.get('full_name', ''),
            phone=data.get('phone', ''),
            is_active=data.get('is_active', True),
            performed_by=request.user
        )
        return self._customer_response(customer, status.HTTP_201_CREATED)

    @extend_schema(request=CustomerWriteSerializer, responses={200: CustomerSerializer})
    def update(self, request, *args, **kwargs):
        """Edit a customer's profile."""
        customer = self.get_object()
        serializer = CustomerWriteSerializer(
            customer,
            data=request.data,
            partial=kwargs.get('partial', False)
        )
        serializer.is_valid(raise_exception=True)

        update_customer(
            customer=customer,
            performed_by=request.user,
            **serializer.validated_data
        )
        return self._customer_response(customer)

    def destroy(self, request, *args, **kwargs):
        """Delete a customer with their balance, transactions and redemptions."""
        try:
            get_engine(request).delete_customer(
                customer_id=self.kwargs['pk'],
                performed_by=request.user
            )
            return Response(status=status.HTTP_204_NO_CONTENT)
        except LoyaltyServiceError as e:
            return service_error_response(e)


@extend_schema(
    parameters=[
        OpenApiParameter('days', OpenApiTypes.INT, description='Window for daily active customers (default 7)'),
    ],
    responses={200: LoyaltyStatsSerializer},
    description="Restaurant dashboard statistics (admin only).",
    tags=['loyalty'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsRestaurantAdmin])
def loyalty_stats(request):
    """Get dashboard statistics - thin HTTP handler."""
    query_serializer = StatsQuerySerializer(data=request.query_params)
    query_serializer.is_valid(raise_exception=True)

    restaurant = request.user.restaurant
    data = LoyaltyAnalytics.summary(restaurant)
    data['daily_active_customers'] = LoyaltyAnalytics.daily_active_customers(
        restaurant,
        days=query_serializer.validated_data['days']
    )
    data['top_rewards'] = LoyaltyAnalytics.top_rewards(restaurant)

    return Response(LoyaltyStatsSerializer(data).data)
