"""
Fixed vocabularies used by signal classification.
"""
import re

# Cloud and infrastructure vendors/services recognized in signal text.
KNOWN_SERVICES = (
    'aws', 'amazon', 'ec2', 's3', 'lambda', 'cloudfront', 'rds', 'dynamodb',
    'azure', 'google cloud', 'gcp', 'gke', 'cloud run', 'bigquery',
    'render', 'vercel', 'netlify', 'heroku', 'cloudflare', 'fastly',
    'github', 'gitlab', 'docker', 'kubernetes', 'k8s',
    'postgres', 'mysql', 'redis', 'mongodb', 'elasticsearch',
    'stripe', 'twilio', 'sendgrid', 'datadog', 'pagerduty',
    'slack', 'discord', 'npm', 'pypi',
)

ERROR_PATTERNS = (
    re.compile(r'\b[45]\d{2}\b'),
    re.compile(r'timeout', re.IGNORECASE),
    re.compile(r'connection refused', re.IGNORECASE),
    re.compile(r'ECONNREFUSED'),
    re.compile(r'ETIMEDOUT'),
    re.compile(r'OOM|out of memory', re.IGNORECASE),
    re.compile(r'segfault|segmentation fault', re.IGNORECASE),
    re.compile(r'ENOMEM'),
    re.compile(r'ENOSPC'),
)

SERVER_ERROR_CODE = re.compile(r'^5\d{2}$')

CRITICAL_KEYWORDS = (
    'outage', 'down', 'critical', 'major', 'complete failure',
    'data loss', 'security breach',
)

WARNING_KEYWORDS = (
    'degraded', 'slow', 'intermittent', 'partial', 'elevated error', 'latency',
)

TIMEOUT_CUES = ('timeout', 'etimedout')
MEMORY_CUES = ('oom', 'out of memory', 'enomem')
DISK_CUES = ('disk', 'enospc')
DNS_CUES = ('dns',)
TLS_CUES = ('certificate', 'ssl', 'tls')
DEPLOY_CUES = ('deploy', 'rollback')

# Phrases in historical post-mortems that mean a restart alone was not enough.
ESCALATION_PHRASES = (
    'scale', 'capacity', 'restart failed', 'escalat',
    'manual intervention', 'insufficient instances',
)
