"""
Production URL patterns.
"""
from django.urls import path
from apps.production import views

app_name = 'production'

urlpatterns = [
    # Orders
    path('orders/', views.ProductionOrderListCreateView.as_view(), name='list-create'),
    path('orders/<uuid:pk>/', views.ProductionOrderDetailView.as_view(), name='detail'),
    path('orders/<uuid:pk>/timeline/', views.order_timeline, name='timeline'),

    # State transitions
    path('orders/<uuid:pk>/advance/', views.advance_order, name='advance'),
    path('orders/<uuid:pk>/confirm-delivery/', views.confirm_delivery, name='confirm-delivery'),
    path('orders/<uuid:pk>/cancel/', views.cancel_order, name='cancel'),

    # Consultations
    path('orders/<uuid:pk>/consultations/', views.request_consultation, name='consultation-request'),
    path('orders/<uuid:pk>/consultation/waive/', views.waive_consultation, name='consultation-waive'),
    path('consultations/<uuid:pk>/start/', views.start_consultation, name='consultation-start'),
    path('consultations/<uuid:pk>/complete/', views.complete_consultation, name='consultation-complete'),

    # Price adjustments
    path('orders/<uuid:pk>/price-adjustments/', views.propose_price_adjustment, name='price-adjustment-propose'),
    path('price-adjustments/<uuid:pk>/resolve/', views.resolve_price_adjustment, name='price-adjustment-resolve'),

    # Proofs
    path('orders/<uuid:pk>/proofs/', views.order_proofs, name='proofs'),
    path('proofs/<uuid:pk>/approve/', views.approve_proof, name='proof-approve'),
    path('proofs/<uuid:pk>/request-revision/', views.request_proof_revision, name='proof-request-revision'),

    # Summaries
    path('provider-summary/', views.provider_summary, name='provider-summary'),
]
