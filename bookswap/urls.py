"""
URL configuration for the bookswap project.
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import (
    AvailableBooksView,
    CompletedSwapsView,
    OfferableBooksView,
    SwapAcceptView,
    SwapCancelView,
    SwapCompleteView,
    SwapCounterOfferView,
    SwapRatingView,
    SwapRequestCountsView,
    SwapRequestDetailView,
    SwapRequestListCreateView,
    SwapStatisticsView,
    UserRatingView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Token endpoints
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Swap request endpoints
    path('api/swaps/', SwapRequestListCreateView.as_view(), name='swap_list_create'),
    path('api/swaps/counts/', SwapRequestCountsView.as_view(), name='swap_counts'),
    path('api/swaps/completed/', CompletedSwapsView.as_view(), name='swap_completed'),
    path('api/swaps/statistics/', SwapStatisticsView.as_view(), name='swap_statistics'),
    path('api/swaps/<int:pk>/', SwapRequestDetailView.as_view(), name='swap_detail'),
    path('api/swaps/<int:pk>/counter-offer/', SwapCounterOfferView.as_view(), name='swap_counter_offer'),
    path('api/swaps/<int:pk>/accept/', SwapAcceptView.as_view(), name='swap_accept'),
    path('api/swaps/<int:pk>/cancel/', SwapCancelView.as_view(), name='swap_cancel'),
    path('api/swaps/<int:pk>/complete/', SwapCompleteView.as_view(), name='swap_complete'),
    path('api/swaps/<int:pk>/rating/', SwapRatingView.as_view(), name='swap_rating'),

    # User and book endpoints
    path('api/users/<int:pk>/rating/', UserRatingView.as_view(), name='user_rating'),
    path('api/books/available/', AvailableBooksView.as_view(), name='books_available'),
    path('api/books/offerable/', OfferableBooksView.as_view(), name='books_offerable'),
]
