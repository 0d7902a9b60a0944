import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import authenticate
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .exceptions import Forbidden, InvalidState, Unauthorized
from .models import User
from .permissions import IsAdminRole, IsClient
from .serializers import (
    NotificationSerializer,
    ProfileUpdateSerializer,
    ProjectSerializer,
    ProposalSerializer,
    RegisterSerializer,
    ReviewSerializer,
    UserSerializer,
)
from .services.entity_store import projects, proposals, reviews, users
from .services.notification_service import notification_service
from .services.project_service import project_service
from .services.proposal_service import proposal_service
from .services.review_service import review_service

logger = logging.getLogger(__name__)


def _int_param(request, name, default=None, minimum=None):
    value = request.query_params.get(name)
    if value in (None, ''):
        return default
    try:
        value = int(value)
    except ValueError:
        raise ValidationError({name: "Must be an integer."})
    if minimum is not None and value < minimum:
        raise ValidationError({name: f"Must be at least {minimum}."})
    return value


def _decimal_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        value = Decimal(value)
    except InvalidOperation:
        raise ValidationError({name: "Must be a number."})
    if not value.is_finite():
        raise ValidationError({name: "Must be a number."})
    return value


def _page_params(request):
    limit = min(_int_param(request, 'limit', 20, minimum=1), 100)
    return limit, _int_param(request, 'offset', 0, minimum=0)


def _list_param(request, name):
    value = request.query_params.get(name)
    if not value:
        return None
    return [item.strip() for item in value.split(',') if item.strip()]


def _token_response(user, status_code=status.HTTP_200_OK):
    refresh = RefreshToken.for_user(user)
    return Response({
        "user": UserSerializer(user).data,
        "access": str(refresh.access_token),
        "refresh": str(refresh),
    }, status=status_code)


# Auth

class RegisterView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"Registered user {user.id} as {user.role}")
        return _token_response(user, status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        identifier = (request.data.get('identifier') or '').strip()
        password = request.data.get('password')

        if not identifier or not password:
            raise ValidationError("Email/Username and Password are required.")

        if '@' in identifier:
            user_obj = User.objects.filter(email__iexact=identifier).first()
            username = user_obj.username if user_obj else None
        else:
            username = identifier

        user = authenticate(request, username=username, password=password) if username else None
        if user is None:
            raise Unauthorized("Invalid credentials.")
        return _token_response(user)


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        """Blacklist the refresh token so it cannot mint new access tokens."""
        refresh_token = request.data.get('refresh')
        if not refresh_token:
            raise ValidationError({"refresh": "Refresh token is required."})

        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError as e:
            raise InvalidState(str(e))

        return Response({"message": "Logout successful!"}, status=status.HTTP_200_OK)


@api_view(['GET'])
def me(request):
    return Response(UserSerializer(request.user).data)


# Projects

class ProjectListCreateView(APIView):
    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request):
        limit, offset = _page_params(request)
        results = projects.list(
            status=request.query_params.get('status'),
            category=request.query_params.get('category'),
            skills=_list_param(request, 'skills'),
            budget_min=_decimal_param(request, 'budget_min'),
            budget_max=_decimal_param(request, 'budget_max'),
            client_id=_int_param(request, 'client_id'),
            freelancer_id=_int_param(request, 'freelancer_id'),
            limit=limit,
            offset=offset,
        )
        return Response(ProjectSerializer(results, many=True).data)

    def post(self, request):
        serializer = ProjectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = project_service.create(request.user, serializer.validated_data)
        return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)


class ProjectDetailView(APIView):
    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        if self.request.method == 'DELETE':
            return [(IsClient | IsAdminRole)()]
        return [IsAuthenticated()]

    def get(self, request, project_id):
        return Response(ProjectSerializer(projects.get(project_id)).data)

    def put(self, request, project_id):
        return self._update(request, project_id, partial=False)

    def patch(self, request, project_id):
        return self._update(request, project_id, partial=True)

    def _update(self, request, project_id, partial):
        serializer = ProjectSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        project = project_service.update(project_id, request.user, serializer.validated_data)
        return Response(ProjectSerializer(project).data)

    def delete(self, request, project_id):
        project_service.delete(project_id, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Proposals

class ProjectProposalsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        project = projects.get(project_id)
        if project.client_id != request.user.id and request.user.role != 'admin':
            raise Forbidden("Only the project owner can view its proposals.")
        return Response(ProposalSerializer(proposals.for_project(project.id), many=True).data)

    def post(self, request, project_id):
        serializer = ProposalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        proposal = proposal_service.submit(project_id, request.user, serializer.validated_data)
        return Response(ProposalSerializer(proposal).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
def my_proposals(request):
    return Response(ProposalSerializer(proposals.for_freelancer(request.user.id), many=True).data)


@api_view(['PUT'])
@permission_classes([IsClient])
def accept_proposal(request, proposal_id):
    proposal = proposal_service.accept(proposal_id, request.user, project_id=request.data.get('project_id'))
    return Response({
        "message": "Proposal accepted.",
        "proposal": ProposalSerializer(proposal).data,
        "project": ProjectSerializer(projects.get(proposal.project_id)).data,
    })


@api_view(['PUT'])
@permission_classes([IsClient])
def reject_proposal(request, proposal_id):
    proposal = proposal_service.reject(proposal_id, request.user, project_id=request.data.get('project_id'))
    return Response({"message": "Proposal rejected.", "proposal": ProposalSerializer(proposal).data})


# Users, search and reviews

@api_view(['GET'])
@permission_classes([AllowAny])
def user_detail(request, user_id):
    user = users.get(user_id)
    data = UserSerializer(user).data
    data['reviews'] = ReviewSerializer(reviews.for_reviewee(user.id), many=True).data
    return Response(data)


class ProfileUpdateView(APIView):
    permission_classes = [IsAuthenticated]

    def put(self, request):
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(UserSerializer(request.user).data)

    patch = put


@api_view(['GET'])
@permission_classes([AllowAny])
def search_freelancers(request):
    limit, offset = _page_params(request)
    results = users.search_freelancers(
        query=request.query_params.get('q', ''),
        skills=_list_param(request, 'skills'),
        location=request.query_params.get('location'),
        min_rating=_decimal_param(request, 'min_rating'),
        limit=limit,
        offset=offset,
    )
    return Response(UserSerializer(results, many=True).data)


@api_view(['POST'])
def create_review(request):
    serializer = ReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    review = review_service.create(
        request.user,
        data['project'].id,
        data['reviewee'].id,
        data['rating'],
        data.get('comment'),
    )
    return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


# Notifications

class NotificationListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        limit = min(_int_param(request, 'limit', 20, minimum=1), 100)
        results = notification_service.list_for_user(request.user, limit=limit)
        return Response(NotificationSerializer(results, many=True).data)


@api_view(['PUT'])
def mark_notification_read(request, notification_id):
    notification = notification_service.mark_read(notification_id, request.user)
    return Response(NotificationSerializer(notification).data)


@api_view(['PUT'])
def mark_all_notifications_read(request):
    updated = notification_service.mark_all_read(request.user)
    return Response({"updated": updated})
