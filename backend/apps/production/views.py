"""
Production order views and API endpoints.
Services raise specific ProductionError kinds; they are returned as
{"error": ..., "code": ...} with the matching HTTP status.
"""
from datetime import timedelta
from django.db import models
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from apps.production.exceptions import ProductionError
from apps.production.models import ProductionOrder
from apps.production.permissions import IsProductionOrderParticipant
from apps.production.serializers import (
    AdvanceOrderSerializer,
    CancelOrderSerializer,
    CompleteConsultationSerializer,
    ConsultationSerializer,
    CreateProductionOrderSerializer,
    PriceAdjustmentSerializer,
    ProductionOrderDetailSerializer,
    ProductionOrderListSerializer,
    ProductionProofSerializer,
    ProposePriceAdjustmentSerializer,
    ProviderSummarySerializer,
    RequestConsultationSerializer,
    ResolvePriceAdjustmentSerializer,
    ReviewProofSerializer,
    SubmitProofSerializer,
    TimelineEventSerializer,
    timeline_limit,
)
from apps.production.services.consultation_service import ConsultationService
from apps.production.services.order_service import ProductionOrderService
from apps.production.services.price_adjustment_service import PriceAdjustmentService
from apps.production.services.proof_service import ProofService

ERROR_RESPONSES = {
    400: OpenApiResponse(description='Invalid input'),
    402: OpenApiResponse(description='Payment processor rejected the charge'),
    403: OpenApiResponse(description='Not a party allowed to do this'),
    404: OpenApiResponse(description='Not found'),
    409: OpenApiResponse(description='Not allowed in the current state or already done'),
}


def error_response(exc: ProductionError) -> Response:
    return Response(
        {'error': exc.message, 'code': exc.code},
        status=exc.status_code
    )


def order_response(request, order, status_code=status.HTTP_200_OK) -> Response:
    # Reload so escrow reflects writes made under the lock
    serializer = ProductionOrderDetailSerializer(
        ProductionOrderService.get_order(order.id),
        context={'request': request, 'timeline_limit': timeline_limit(request)}
    )
    return Response(serializer.data, status=status_code)


class ProductionOrderListCreateView(generics.ListCreateAPIView):
    """
    List the user's production orders and create new ones.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return CreateProductionOrderSerializer
        return ProductionOrderListSerializer

    def get_queryset(self):
        """Return orders where user is customer or provider."""
        return ProductionOrderService.orders_for(
            self.request.user,
            status=self.request.query_params.get('status')
        )

    @extend_schema(
        tags=['Production Orders'],
        summary='Create a production order',
        request=CreateProductionOrderSerializer,
        responses={201: ProductionOrderDetailSerializer, **ERROR_RESPONSES},
    )
    def post(self, request, *args, **kwargs):
        serializer = CreateProductionOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = ProductionOrderService.create_order(
                customer=request.user,
                provider=data['provider_id'],
                escrow_amount=data['escrow_amount'],
                consultation_required=data['consultation_required'],
                title=data.get('title', ''),
                currency=data.get('currency')
            )
        except ProductionError as e:
            return error_response(e)

        return order_response(request, order, status.HTTP_201_CREATED)


class ProductionOrderDetailView(generics.RetrieveAPIView):
    """
    Get order details.
    Only the customer, the provider or staff can view.
    """
    serializer_class = ProductionOrderDetailSerializer
    permission_classes = [permissions.IsAuthenticated, IsProductionOrderParticipant]

    def get_queryset(self):
        # Non-participants get 404 rather than 403
        queryset = ProductionOrder.objects.select_related('customer', 'provider', 'escrow')
        if self.request.user.is_staff:
            return queryset
        return queryset.filter(
            models.Q(customer=self.request.user) | models.Q(provider=self.request.user)
        )

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['timeline_limit'] = timeline_limit(self.request)
        return context


@extend_schema(
    tags=['Production Orders'],
    summary='Advance order to the next status',
    request=AdvanceOrderSerializer,
    responses={200: ProductionOrderDetailSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def advance_order(request, pk):
    """
    Move the order one step forward.
    Tracking details are stored when the order enters shipped.
    """
    serializer = AdvanceOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        ProductionOrderService.get_order(pk, user=request.user)
        order = ProductionOrderService.advance(
            order_id=pk,
            user=request.user,
            tracking_number=serializer.validated_data.get('tracking_number'),
            shipping_carrier=serializer.validated_data.get('shipping_carrier')
        )
    except ProductionError as e:
        return error_response(e)

    return order_response(request, order)


@extend_schema(
    tags=['Production Orders'],
    summary='Confirm delivery and release escrow',
    request=None,
    responses={200: ProductionOrderDetailSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def confirm_delivery(request, pk):
    """
    Customer confirms receipt of the order.
    Transitions: READY_FOR_DELIVERY / SHIPPED -> COMPLETED
    Releases escrow funds to the provider.
    """
    try:
        ProductionOrderService.get_order(pk, user=request.user)
        order = ProductionOrderService.confirm_delivery(order_id=pk, user=request.user)
    except ProductionError as e:
        return error_response(e)

    return order_response(request, order)


@extend_schema(
    tags=['Production Orders'],
    summary='Cancel order and refund escrow',
    request=CancelOrderSerializer,
    responses={200: ProductionOrderDetailSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def cancel_order(request, pk):
    """
    Cancel order.
    Available to customer, provider, or staff.
    """
    serializer = CancelOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        ProductionOrderService.get_order(pk, user=request.user)
        order = ProductionOrderService.cancel_order(
            order_id=pk,
            user=request.user,
            reason=serializer.validated_data['reason']
        )
    except ProductionError as e:
        return error_response(e)

    return order_response(request, order)


@extend_schema(
    tags=['Production Orders'],
    summary='Recent timeline events',
    parameters=[OpenApiParameter('limit', int, description='Number of events (default 20)')],
    responses={200: TimelineEventSerializer(many=True), 404: ERROR_RESPONSES[404]},
)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def order_timeline(request, pk):
    """Most recent timeline events for an order, oldest first."""
    try:
        events = ProductionOrderService.recent_timeline(
            pk, limit=timeline_limit(request), user=request.user
        )
    except ProductionError as e:
        return error_response(e)

    return Response(TimelineEventSerializer(events, many=True).data)


# ==================== Consultations ====================

@extend_schema(
    tags=['Consultations'],
    summary='Request a consultation',
    request=RequestConsultationSerializer,
    responses={201: ConsultationSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def request_consultation(request, pk):
    serializer = RequestConsultationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    timeout = None
    if 'timeout_hours' in serializer.validated_data:
        timeout = timedelta(hours=serializer.validated_data['timeout_hours'])

    try:
        ProductionOrderService.get_order(pk, user=request.user)
        consultation = ConsultationService.request(pk, request.user, timeout=timeout)
    except ProductionError as e:
        return error_response(e)

    return Response(ConsultationSerializer(consultation).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Consultations'],
    summary='Waive the consultation requirement',
    request=None,
    responses={200: ProductionOrderDetailSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def waive_consultation(request, pk):
    """Either party may waive. No-op when no consultation is required."""
    try:
        ProductionOrderService.get_order(pk, user=request.user)
        order = ConsultationService.waive(pk, request.user)
    except ProductionError as e:
        return error_response(e)

    return order_response(request, order)


@extend_schema(
    tags=['Consultations'],
    summary='Start a consultation session',
    request=None,
    responses={200: ConsultationSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def start_consultation(request, pk):
    try:
        consultation = ConsultationService.start(pk, request.user)
    except ProductionError as e:
        return error_response(e)

    return Response(ConsultationSerializer(consultation).data)


@extend_schema(
    tags=['Consultations'],
    summary='Complete a consultation session',
    request=CompleteConsultationSerializer,
    responses={200: ConsultationSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def complete_consultation(request, pk):
    serializer = CompleteConsultationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        consultation = ConsultationService.complete(
            pk, request.user, notes=serializer.validated_data.get('notes', '')
        )
    except ProductionError as e:
        return error_response(e)

    return Response(ConsultationSerializer(consultation).data)


# ==================== Price adjustments ====================

@extend_schema(
    tags=['Price Adjustments'],
    summary='Propose a price adjustment (provider)',
    request=ProposePriceAdjustmentSerializer,
    responses={201: PriceAdjustmentSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def propose_price_adjustment(request, pk):
    serializer = ProposePriceAdjustmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        ProductionOrderService.get_order(pk, user=request.user)
        adjustment = PriceAdjustmentService.propose(
            pk,
            request.user,
            adjusted_price=data['adjusted_price'],
            justification=data['justification'],
            response_deadline=data.get('response_deadline')
        )
    except ProductionError as e:
        return error_response(e)

    return Response(PriceAdjustmentSerializer(adjustment).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Price Adjustments'],
    summary='Approve or reject a price adjustment (customer)',
    request=ResolvePriceAdjustmentSerializer,
    responses={200: PriceAdjustmentSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def resolve_price_adjustment(request, pk):
    serializer = ResolvePriceAdjustmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        adjustment = PriceAdjustmentService.resolve(
            pk, request.user, serializer.validated_data['decision']
        )
    except ProductionError as e:
        return error_response(e)

    return Response(PriceAdjustmentSerializer(adjustment).data)


# ==================== Proofs ====================

@extend_schema(
    tags=['Proofs'],
    summary='List proof versions or submit a new proof (provider)',
    request=SubmitProofSerializer,
    responses={200: ProductionProofSerializer(many=True), 201: ProductionProofSerializer, **ERROR_RESPONSES},
)
@api_view(['GET', 'POST'])
@permission_classes([permissions.IsAuthenticated])
def order_proofs(request, pk):
    """
    GET: all proof versions, newest first.
    POST: submit the next version. Moves an in-production order to pending_approval.
    """
    if request.method == 'GET':
        try:
            order = ProductionOrderService.get_order(pk, user=request.user)
        except ProductionError as e:
            return error_response(e)
        proofs = ProductionOrderService.proofs(order)
        return Response(ProductionProofSerializer(proofs, many=True).data)

    serializer = SubmitProofSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        ProductionOrderService.get_order(pk, user=request.user)
        proof = ProofService.submit(
            pk,
            request.user,
            proof_images=data['proof_images'],
            design_files=data.get('design_files'),
            notes=data.get('notes', '')
        )
    except ProductionError as e:
        return error_response(e)

    return Response(ProductionProofSerializer(proof).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Proofs'],
    summary='Approve a proof (customer)',
    request=ReviewProofSerializer,
    responses={200: ProductionProofSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def approve_proof(request, pk):
    """Transitions: PENDING_APPROVAL -> READY_FOR_DELIVERY"""
    serializer = ReviewProofSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        proof = ProofService.approve(pk, request.user, feedback=serializer.validated_data.get('feedback', ''))
    except ProductionError as e:
        return error_response(e)

    return Response(ProductionProofSerializer(proof).data)


@extend_schema(
    tags=['Proofs'],
    summary='Request changes to a proof (customer)',
    request=ReviewProofSerializer,
    responses={200: ProductionProofSerializer, **ERROR_RESPONSES},
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def request_proof_revision(request, pk):
    """Order stays in PENDING_APPROVAL until the provider submits the next version."""
    serializer = ReviewProofSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        proof = ProofService.request_revision(
            pk, request.user, feedback=serializer.validated_data.get('feedback', '')
        )
    except ProductionError as e:
        return error_response(e)

    return Response(ProductionProofSerializer(proof).data)


@extend_schema(
    tags=['Production Orders'],
    summary="Current user's provider summary",
    responses={200: ProviderSummarySerializer},
)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def provider_summary(request):
    """Order counts and payouts for orders the user provides."""
    summary = ProductionOrderService.provider_summary(request.user)
    return Response(ProviderSummarySerializer(summary).data)
