from django.contrib.auth import get_user_model
from drf_spectacular.utils import extend_schema
from rest_framework import permissions, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.serializers import UserSerializer, UserCreateSerializer
from .permissions import RolePermission

User = get_user_model()


@extend_schema(tags=["users"])
class UserViewSet(viewsets.ModelViewSet):
    """
    Staff management endpoints. Only admins may create or edit accounts.
    """

    queryset = User.objects.all().order_by("username")
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated, RolePermission]
    allowed_roles = [User.Roles.ADMIN]

    def get_serializer_class(self):
        if self.action == "create":
            return UserCreateSerializer
        return UserSerializer

    @extend_schema(summary="Get current user profile", responses={200: UserSerializer})
    @action(
        detail=False, methods=["get"], permission_classes=[permissions.IsAuthenticated]
    )
    def me(self, request):
        """Get the current authenticated user's profile."""
        return Response(UserSerializer(request.user).data)
