from jcomm.comm import Comm, CommState
from jcomm.future import KernelFuture
from jcomm.kernel import KernelConnection
from jcomm.session import Session, create_message
