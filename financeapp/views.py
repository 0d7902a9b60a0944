from rest_framework import serializers, status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsClient, IsFreelancer
from core.serializers import MilestoneSerializer

from .services.payment_service import payment_service


class MilestoneActionSerializer(serializers.Serializer):
    feedback = serializers.CharField(required=False, allow_blank=True)
    deliverables = serializers.ListField(child=serializers.CharField(max_length=500), required=False)


def _action_data(request):
    serializer = MilestoneActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class ProjectMilestonesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        results = payment_service.list_for_project(project_id, request.user)
        return Response(MilestoneSerializer(results, many=True).data)


@api_view(['PUT'])
@permission_classes([IsFreelancer])
def submit_milestone(request, milestone_id):
    data = _action_data(request)
    milestone = payment_service.submit(milestone_id, request.user, deliverables=data.get('deliverables'))
    return Response(MilestoneSerializer(milestone).data)


@api_view(['PUT'])
@permission_classes([IsClient])
def approve_milestone(request, milestone_id):
    data = _action_data(request)
    milestone = payment_service.approve(milestone_id, request.user, feedback=data.get('feedback'))
    return Response(MilestoneSerializer(milestone).data)


@api_view(['PUT'])
@permission_classes([IsClient])
def reject_milestone(request, milestone_id):
    data = _action_data(request)
    milestone = payment_service.reject(milestone_id, request.user, feedback=data.get('feedback'))
    return Response(MilestoneSerializer(milestone).data)


@api_view(['POST'])
@permission_classes([IsClient])
def create_payment_intent(request, milestone_id):
    """
    Open a Razorpay order for an approved milestone.
    """
    intent = payment_service.create_payment_intent(milestone_id, request.user)
    return Response(intent, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsClient])
def confirm_payment(request, milestone_id):
    """
    Refresh the milestone's payment status from Razorpay.
    """
    milestone = payment_service.confirm_payment(milestone_id, request.user)
    return Response(MilestoneSerializer(milestone).data)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def razorpay_webhook(request):
    signature = request.headers.get('X-Razorpay-Signature')
    milestone = payment_service.handle_webhook(request.body, signature)
    return Response({
        'status': 'ok',
        'milestone_id': milestone.id if milestone else None,
    })
