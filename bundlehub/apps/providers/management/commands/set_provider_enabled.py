from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from apps.providers.services import UnknownProviderError, set_provider_enabled


class Command(BaseCommand):
    help = "Enable or disable dispatch to a fulfillment provider (jaybart, codecraft, jesco, easydata)."

    def add_arguments(self, parser):
        parser.add_argument('provider', type=str)
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument('--on', dest='enabled', action='store_true')
        group.add_argument('--off', dest='enabled', action='store_false')

    def handle(self, *args, **options):
        try:
            setting = set_provider_enabled(options['provider'], options['enabled'])
        except UnknownProviderError as exc:
            raise CommandError(str(exc))
        state = 'enabled' if setting.enabled else 'disabled'
        self.stdout.write(self.style.SUCCESS(f'{setting.provider} {state}'))
