from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import Milestone, Notification, Project, Proposal, Review

User = get_user_model()


class UserShortSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'avatar', 'role']


class UserSerializer(serializers.ModelSerializer):
    """Public profile; never exposes credentials."""

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'role', 'first_name', 'last_name', 'avatar',
            'bio', 'location', 'skills', 'portfolio_links', 'hourly_rate',
            'total_earnings', 'total_spent', 'rating', 'review_count',
            'is_email_verified', 'date_joined',
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(choices=[('client', 'Client'), ('freelancer', 'Freelancer')])

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'role', 'first_name', 'last_name']
        extra_kwargs = {'email': {'required': True}}

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("User already exists")
        return value.lower()

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class ProfileUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'bio', 'location', 'skills', 'portfolio_links', 'hourly_rate', 'avatar']

    def validate_skills(self, value):
        if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
            raise serializers.ValidationError("Skills must be a list of strings.")
        return value


class ProjectSerializer(serializers.ModelSerializer):
    client = UserShortSerializer(read_only=True)
    freelancer = UserShortSerializer(read_only=True)
    skills = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    attachments = serializers.ListField(child=serializers.CharField(max_length=500), required=False)
    budget = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))

    class Meta:
        model = Project
        fields = [
            'id', 'title', 'description', 'category', 'skills', 'budget', 'budget_type',
            'timeline', 'status', 'attachments', 'client', 'freelancer', 'accepted_proposal',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['status', 'client', 'freelancer', 'accepted_proposal', 'created_at', 'updated_at']


class ProposedMilestoneSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(allow_blank=True, required=False, default='')
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    due_date = serializers.DateField()


class ProposalSerializer(serializers.ModelSerializer):
    freelancer = UserShortSerializer(read_only=True)
    milestones = ProposedMilestoneSerializer(many=True, required=False)
    portfolio_samples = serializers.ListField(child=serializers.CharField(max_length=500), required=False)
    proposed_budget = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))

    class Meta:
        model = Proposal
        fields = [
            'id', 'project', 'freelancer', 'cover_letter', 'proposed_budget', 'proposed_timeline',
            'milestones', 'portfolio_samples', 'questions', 'status', 'created_at', 'updated_at',
        ]
        read_only_fields = ['project', 'freelancer', 'status', 'created_at', 'updated_at']

    def validate_milestones(self, value):
        # Stored as plain JSON; amounts stay decimal strings
        return [
            {
                'title': entry['title'],
                'description': entry.get('description', ''),
                'amount': str(entry['amount']),
                'due_date': entry['due_date'].isoformat(),
            }
            for entry in value
        ]


class MilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = Milestone
        fields = [
            'id', 'project', 'title', 'description', 'amount', 'due_date', 'status',
            'deliverables', 'feedback', 'approved_at', 'paid_at', 'payment_intent_id',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'related_id', 'is_read', 'created_at']
        read_only_fields = fields


class ReviewSerializer(serializers.ModelSerializer):
    reviewer = UserShortSerializer(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'project', 'reviewer', 'reviewee', 'rating', 'comment', 'created_at']
        read_only_fields = ['reviewer', 'created_at']
        # Uniqueness is checked by ReviewService so the error names the rule
        validators = []
