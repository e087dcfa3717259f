from django.core.management.base import BaseCommand
from django.utils.dateparse import parse_date

from rh.lifecycle import sweep_overdue


class Command(BaseCommand):
    help = 'Marca como não entregues as tarefas abertas ou em andamento com prazo vencido.'

    def add_arguments(self, parser):
        parser.add_argument('--date', help='Data de referência (AAAA-MM-DD); padrão: hoje')

    def handle(self, *args, **options):
        today = None
        if options.get('date'):
            today = parse_date(options['date'])
            if today is None:
                self.stderr.write(self.style.ERROR('Data inválida (use AAAA-MM-DD)'))
                return

        changed = sweep_overdue(today)
        self.stdout.write(self.style.SUCCESS(f'Varredura concluída. Tarefas marcadas como não entregues: {changed}'))
