"""
Management command to provision an admin account.

Registration through the API only ever creates clients; admins are created
here by an operator, or an existing user is promoted.
"""
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from apps.rbac.models import User, AuditLog


class Command(BaseCommand):
    help = 'Create an admin user, or promote an existing user to admin'

    def add_arguments(self, parser):
        parser.add_argument(
            '--username',
            type=str,
            required=True,
            help='Admin username',
        )
        parser.add_argument(
            '--organization',
            type=str,
            default='',
            help='Organization of the admin (required when creating)',
        )
        parser.add_argument(
            '--password',
            type=str,
            help='Password for the new admin (required when creating)',
        )
        parser.add_argument(
            '--promote',
            action='store_true',
            help='Promote an existing user instead of creating one',
        )

    def handle(self, *args, **options):
        username = options['username'].strip()
        organization = options['organization'].strip()
        password = options.get('password')

        user = User.objects.by_username(username)

        if options['promote']:
            if not user:
                raise CommandError(f'User not found: {username}')
            if user.is_admin:
                self.stdout.write(self.style.WARNING(f'{username} is already an admin'))
                return
            user.role = User.ROLE_ADMIN
            user.save(update_fields=['role', 'updated_at'])
            AuditLog.log_action(
                action='user_promoted_to_admin',
                user=None,
                target_type='User',
                target_id=user.id,
                metadata={'username': user.username},
            )
            self.stdout.write(self.style.SUCCESS(f'Promoted {username} to admin'))
            return

        if user:
            raise CommandError(
                f'User already exists: {username}\n'
                f'Use --promote to make an existing user an admin'
            )
        if not password or not organization:
            raise CommandError('--password and --organization are required when creating an admin')

        try:
            validate_password(password)
        except ValidationError as e:
            raise CommandError('Password rejected: ' + ' '.join(e.messages))

        user = User.objects.create_admin(username, password, organization=organization)
        AuditLog.log_action(
            action='admin_created',
            user=None,
            target_type='User',
            target_id=user.id,
            metadata={'username': user.username, 'organization': organization},
        )
        self.stdout.write(self.style.SUCCESS(f'Created admin: {username} ({organization})'))
