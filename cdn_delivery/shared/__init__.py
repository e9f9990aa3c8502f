# cdn_delivery/shared: configuration, descriptor, token and URL building blocks.
