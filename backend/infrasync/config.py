import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()

INFRASYNC_REGION = os.getenv("INFRASYNC_REGION", "us-east-1")
INFRASYNC_INSTANCE_AMI = os.getenv("INFRASYNC_INSTANCE_AMI", "ami-0c02fb55956c7d316")
INFRASYNC_INSTANCE_TYPE = os.getenv("INFRASYNC_INSTANCE_TYPE", "t3.micro")
INFRASYNC_CONTAINER_IMAGE = os.getenv("INFRASYNC_CONTAINER_IMAGE", "public.ecr.aws/nginx/nginx:latest")

# hash | random | time
NAME_SUFFIX_STRATEGY = os.getenv("NAME_SUFFIX_STRATEGY", "hash")
NAME_SUFFIX_SEED = os.getenv("NAME_SUFFIX_SEED")

TEXT_DEBOUNCE_SECONDS = float(os.getenv("TEXT_DEBOUNCE_SECONDS", "0.4"))

LOCALSTACK_ENDPOINT = os.getenv("LOCALSTACK_ENDPOINT", "http://localhost:4566")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
